"""Project Hub — FastAPI service around the gallery core."""
