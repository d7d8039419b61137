"""hostdeploy - provision one host and deploy one containerized app behind nginx"""

__version__ = "1.0.0"
