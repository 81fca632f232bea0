"""360Giving grant-data sync and AI funder matching for UK charities."""
