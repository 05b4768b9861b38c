"""Helpers for working with CTI identifier strings."""

_SEPARATOR = "~"


def get_parent_cti(cti: str) -> str:
    """Return the part of ``cti`` before its last ``~``.

    An empty string means the identifier has no direct parent.
    """
    parent, separator, _ = cti.rpartition(_SEPARATOR)
    return parent if separator else ""


def get_base_cti(cti: str) -> str:
    """Return the part of ``cti`` before its first ``~``, or ``cti`` itself."""
    return cti.partition(_SEPARATOR)[0]