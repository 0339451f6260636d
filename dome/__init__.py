"""Token economy, loadouts and persistence for the Dome arena game mode."""

__version__ = "1.0.0"
