"""Browser-side automation for the GaggleAMP web app."""
