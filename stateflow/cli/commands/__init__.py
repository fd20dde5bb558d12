"""StateFlow CLI サブコマンド."""
