"""Amaron battery specification scraper."""
