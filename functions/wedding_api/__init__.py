"""
Wedding invitation backend.

A FastAPI service exposing validated CRUD over a document store for the
invitation site's content (RSVPs, guests, schedules, photos, bank details,
audio), with Firebase Auth for sign-in and an S3-compatible asset host for
uploaded media.
"""
