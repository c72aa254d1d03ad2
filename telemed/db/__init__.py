"""Firebase app and Firestore client management."""
