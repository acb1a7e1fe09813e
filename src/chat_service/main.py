from chat_service.app import ChatService

service = ChatService()
app = service.app


@app.get("/")
async def root():
    return {
        "message": "MCP chat service is running!",
        "service": service.name,
        "server_url": service.session.server_url,
        "available_tools": [tool.name for tool in service.session.tools],
        "docs": "/docs"
    }
