"""pm2-offline — install PM2 from a directory of pre-downloaded npm archives."""

__version__ = "0.1.0"
