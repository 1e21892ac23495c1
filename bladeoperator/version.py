"""Version and product of the operator build."""

DEFAULT_VERSION = "unknown"
DEFAULT_PRODUCT = "community"
DELIMITER = ","

# Set by the release process as "<version><DELIMITER><product>".
COMBINED_VERSION = ""


def parse_combined_version(combined, delimiter=DELIMITER):
    """Split ``"version<delimiter>product"`` into ``(version, product)``.

    Missing parts keep their defaults; fields after the second are ignored.
    """
    version, product = DEFAULT_VERSION, DEFAULT_PRODUCT
    if combined:
        fields = combined.split(delimiter)
        version = fields[0]
        if len(fields) > 1:
            product = fields[1]
    return version, product


VERSION, PRODUCT = parse_combined_version(COMBINED_VERSION)