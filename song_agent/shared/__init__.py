"""Общие компоненты приложения (ошибки, контекст трассировки)."""
