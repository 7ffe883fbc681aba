"""Concrete adapters for the interfaces in :mod:`corpuschat.interfaces`."""
