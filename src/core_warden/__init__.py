"""Pin named processes to a low priority class and a single CPU core."""
