"""MoneyLink: account-linking flow for bank aggregators and accounting services."""

__version__ = "0.1.0"
