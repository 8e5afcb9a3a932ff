from .fix import handle_fix
