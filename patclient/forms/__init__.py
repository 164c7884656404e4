"""Winlink message templates, HTML forms and the template sequence number."""