"""Trivia domain services: question bank, ladders, sessions and scoring.

The engine modules (questions, ladder, player, scoring, session, scheduler,
rooms) do not import Flask. Storage, the user directory and the Socket.IO
broadcaster are the adapters that connect the engine to the app.
"""
