from pyglet.graphics.shader import Shader, ShaderProgram


VERTEX_SOURCE = """
#version 330 core

uniform mat4 u_projection;
uniform mat4 u_view;

in vec3 position;
in vec3 normal;
in vec3 color;

out vec3 v_normal;
out vec3 v_color;

void main() {
    gl_Position = u_projection * u_view * vec4(position, 1.0);
    // Lighting is done in world space; the mesh has no model transform.
    v_normal = normal;
    v_color = color;
}
"""


FRAGMENT_SOURCE = """
#version 330 core

uniform vec3 u_ambient;
uniform vec3 u_light_dir;
uniform vec3 u_light_color;

in vec3 v_normal;
in vec3 v_color;

out vec4 out_color;

void main() {
    vec3 n = normalize(v_normal);
    float diffuse = max(dot(n, normalize(u_light_dir)), 0.0);
    vec3 lit = v_color * (u_ambient + u_light_color * diffuse);
    out_color = vec4(lit, 1.0);
}
"""


def create_voxel_shader():
    """Create the shader program used to draw the voxel mesh."""
    vertex_shader = Shader(VERTEX_SOURCE, "vertex")
    fragment_shader = Shader(FRAGMENT_SOURCE, "fragment")
    return ShaderProgram(vertex_shader, fragment_shader)
