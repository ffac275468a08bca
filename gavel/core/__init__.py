"""Auction core: state store, handlers, custody, events and persistence"""
