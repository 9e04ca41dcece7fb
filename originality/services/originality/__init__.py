"""Originality detection pipeline."""
