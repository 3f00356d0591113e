#!/usr/bin/env python3
"""Entry point for running the SMS reminder service from a checkout."""

import sys

from sms_reminder.app import main

if __name__ == "__main__":
    sys.exit(main())
