# =============================================================================
# relay-mailer Entry Point for `python -m relay_mailer`
# =============================================================================
# This module allows relay-mailer to be run as a Python module:
#
#   python -m relay_mailer send --to bob@example.com --subject Hi --body Hello
#
# This is equivalent to running the 'relay-mailer' command after installation.
# =============================================================================

import sys

from relay_mailer.app import main

if __name__ == "__main__":
    sys.exit(main())
