"""Data Access Objects: one class per aggregate, session passed explicitly."""
