"""
Repobot - Turn a repository's state into an AI-written progress report.

A CLI tool that:
1. Reads the working tree state from git
2. Discovers TODO checklists and documentation, honoring .gitignore
3. Parses them into a structured context
4. Summarizes the context into a report and optionally sends it to Telegram

Usage:
    repobot init            # Create repobot.yml in current repo
    repobot context         # Show the gathered repository context
    repobot todos           # List checklist tasks
    repobot todo done ...   # Tick a task in a TODO file
    repobot report          # Generate (and optionally send) a report
    repobot config get ...  # Read or update configuration values
"""

__version__ = "0.1.0"
__author__ = "Repobot"
