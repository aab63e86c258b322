"""discord.py front end for the Linekeeper queue engine."""
