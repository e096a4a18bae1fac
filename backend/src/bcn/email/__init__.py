"""Transactional email via SendGrid."""
