"""Business services operating on the qrnr storage layer."""
