"""
mindustry_launcher package
--------------------------
Command-line launcher for Mindustry: resolves and downloads game versions,
stages external mods, and supervises the game process with interactive
restart/rebuild/recompile commands.
"""

__version__ = "0.4.0"
