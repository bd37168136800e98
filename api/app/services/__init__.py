"""Order services: intake, lifecycle, loyalty ledger and notifications."""
