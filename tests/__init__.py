"""Test package for the Math Recall trainer.

Core tests drive the progression engine with a fake clock and need no
display. The smoke tests run the pygame UI headlessly using the dummy SDL
video driver. To run these tests, execute ``pytest`` from the project root.
"""
