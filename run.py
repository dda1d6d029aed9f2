from skinportal import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # socketio.run instead of app.run so the room notifications work
    socketio.run(app, debug=True, port=5000)
