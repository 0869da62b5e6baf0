"""Simple development runner that imports the app factory and runs the Flask dev server.
Use this for manual API smoke testing only.
"""
from mediclean import create_app

if __name__ == '__main__':
    app = create_app()
    with app.app_context():
        app.init_db()
    app.run(host='127.0.0.1', port=5001, debug=True)
