"""Describes the kitchen domain. Centres around the `ViewController`.

The only state with real invariants is the `ShoppingList`. Everything else is
either a thin wrapper over a hosted api (recipes, substitutions, speech,
accounts) or bookkeeping for which screen the browser is on.
"""
