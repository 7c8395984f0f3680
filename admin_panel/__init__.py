"""Веб админ-панель классов."""
