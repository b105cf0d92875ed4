"""
ESS CLI - Interactive control client for the ESS manager.

This package wires the bus client, the status listener and the command
dispatcher into an interactive console application.

Usage:
    ess-cli --config config/ess_client.yaml

    > p
    > soc_max
    Enter SOC Max value:
    90
    > get soc_limit
    > set soc_limit 80
    > exit
"""

__version__ = "1.0.0"
