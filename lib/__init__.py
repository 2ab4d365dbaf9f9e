"""Library modules shared by the sa-ninja-gen command line tools."""
