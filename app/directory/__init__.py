"""
Directory app: local business listings.

Businesses are normally created by the listing editor (out of scope here);
the one path owned by this codebase is the first-time sponsor signup,
which creates a business from data deferred through checkout.
"""
