"""umlpipe-serve command line interface."""
