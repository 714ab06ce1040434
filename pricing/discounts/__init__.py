"""Discount records, eligibility, auto-apply selection and amounts."""
