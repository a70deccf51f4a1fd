"""
autoledger - Automatic Ledger Capture

A personal ledger core that turns bank and card notifications into ledger
entries and moves the ledger between devices with one-time pairing codes.

DESIGN PRINCIPLES:
1. Parsing is pure: text in, transaction (or nothing) out
2. Every batch is reconciled against what is already saved
3. One run at a time; extra triggers are dropped, never queued
4. Store failures stop the batch, never corrupt it
5. The sync password never leaves the device
6. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "autoledger Team"
