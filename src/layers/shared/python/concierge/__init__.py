"""Concierge shared library: lead discovery, design specs and site verification."""
