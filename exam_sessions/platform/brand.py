"""Centralized brand configuration for user-facing copy."""

BRAND_NAME = "ExamPrep"
BRAND_APP_DESCRIPTION = "Scheduled exam windows, resumable attempts and scoring"
