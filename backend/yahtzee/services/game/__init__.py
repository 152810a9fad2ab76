"""Game domain services: rules, turns, bots and the turn authority.

Scoring, scorecards, the turn machine and the bot decisions are pure and
know nothing about Flask. HTTP routes and socket handlers call into
``authority``, which is the only module that writes room state.
"""
