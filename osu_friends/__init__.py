"""Discord bot that links members to osu! accounts via osu!friends."""
