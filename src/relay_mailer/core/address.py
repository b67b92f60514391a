# =============================================================================
# Address Utilities
# =============================================================================
# Helpers for the two address shapes the mailer accepts:
#
#   - bare:     user@host
#   - display:  Display Name <user@host>
#
# An address is in display form when it ends with ">" and contains "<"; the
# display name is whatever precedes the last "<".
#
# Recipient lists are semicolon separated ("a@x.com; Bob <b@y.com>").
# =============================================================================


def get_address_array(mail_to: str | None) -> list[str]:
    """
    Split a semicolon separated recipient string into addresses.

    Entries are stripped and empty entries are dropped; order is preserved.

    Args:
        mail_to: Recipients separated by semicolons. May be None.

    Returns:
        List of addresses.

    Example:
        >>> get_address_array("a@x.com; b@y.com ; c@z.com")
        ['a@x.com', 'b@y.com', 'c@z.com']
    """
    if not mail_to:
        return []

    addresses = []
    for entry in mail_to.split(";"):
        entry = entry.strip()
        if entry:
            addresses.append(entry)
    return addresses


def _angle_start(address: str) -> int:
    """Index of the "<" opening the trailing "<user@host>", or -1."""
    if address.endswith(">"):
        return address.rfind("<")
    return -1


def get_mail_address(address: str) -> str:
    """
    Extract the bare address from "Name <user@host>".

    Addresses that are not in display form are returned unchanged.

    Example:
        >>> get_mail_address("Jane Doe <jane@x.com>")
        'jane@x.com'
    """
    start = _angle_start(address)
    if start != -1:
        return address[start + 1:-1]
    return address


def get_display_name(address: str) -> str:
    """Return the display part of "Name <user@host>", or "" for a bare address."""
    start = _angle_start(address)
    if start != -1:
        return address[:start].strip()
    return ""
