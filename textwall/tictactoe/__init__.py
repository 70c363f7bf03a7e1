"""Tic-tac-toe against a minimax opponent, driven by voice commands."""
