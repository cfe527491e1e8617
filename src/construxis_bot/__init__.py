"""
Construxis Discord Bot - chat front end for the Construxis economy API.

This module provides a Discord bot that lets linked users check balances,
move cash and bank funds, pay entity treasuries, approve pending transfers
and trade on the stock market through slash commands.

All money, wallets, accounts and stocks live in the Construxis backend.
The bot only keeps:
- A Discord ID -> backend username link file
- An entity permission file
- An in-memory currency table refreshed from the backend
"""

__version__ = "0.1.0"
