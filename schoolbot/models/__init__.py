"""Модели базы данных."""
from schoolbot.models.user import User
from schoolbot.models.school_class import SchoolClass
from schoolbot.models.news import News
from schoolbot.models.parent_verification import ParentVerification
from schoolbot.models.parent_class_link import ParentClassLink

__all__ = [
    "User",
    "SchoolClass",
    "News",
    "ParentVerification",
    "ParentClassLink",
]
