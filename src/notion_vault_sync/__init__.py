"""notion-vault-sync: keep a Notion database and a Markdown vault in step."""

__version__ = "0.1.0"
