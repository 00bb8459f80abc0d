"""influx-importer command-line interface."""
