"""Сервисы Song Agent."""
